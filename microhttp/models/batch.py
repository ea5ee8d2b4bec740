"""Models for batched request execution."""

from enum import StrEnum
from typing import Any, TypeVar, overload

from pydantic import BaseModel, field_validator

from microhttp.models.context import RequestContext

T = TypeVar("T")


class HttpMethod(StrEnum):
    """HTTP verbs a batch item can use."""

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"

    @property
    def takes_body(self) -> bool:
        return self in (HttpMethod.POST, HttpMethod.PUT, HttpMethod.PATCH)


class BatchItem(BaseModel):
    """A single request inside a batch.

    Fields:
        url: Target URL (absolute, or relative to the client's base URL).
        method: HTTP verb.
        data: Body for POST/PUT/PATCH. Must be None for GET/DELETE.
        response_type: Type the response body is decoded into.
        context: Per-item context; overrides the batch-level context.
    """

    url: str
    method: HttpMethod = HttpMethod.GET
    data: Any = None
    response_type: Any
    context: RequestContext | None = None

    model_config = {"frozen": True}

    @field_validator("url")
    @classmethod
    def url_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("url must not be empty")
        return v

    @field_validator("method", mode="before")
    @classmethod
    def method_upper(cls, v: Any) -> Any:
        return v.upper() if isinstance(v, str) else v

    @field_validator("response_type")
    @classmethod
    def response_type_present(cls, v: Any) -> Any:
        if v is None:
            raise ValueError("response_type is required")
        return v


class RequestBatch:
    """An ordered set of independent requests.

    Every ``add*`` method returns the index the item's outcome will be
    reported under in ``BatchResults``.
    """

    def __init__(self) -> None:
        self._items: list[BatchItem] = []

    def add_item(self, item: BatchItem) -> int:
        self._items.append(item)
        return len(self._items) - 1

    def add(
        self, url: str, response_type: Any, context: RequestContext | None = None
    ) -> int:
        """Add a GET request."""
        return self.add_item(
            BatchItem(url=url, method=HttpMethod.GET, response_type=response_type, context=context)
        )

    def add_post(
        self,
        url: str,
        data: Any,
        response_type: Any,
        context: RequestContext | None = None,
    ) -> int:
        return self.add_item(
            BatchItem(
                url=url,
                method=HttpMethod.POST,
                data=data,
                response_type=response_type,
                context=context,
            )
        )

    def add_put(
        self,
        url: str,
        data: Any,
        response_type: Any,
        context: RequestContext | None = None,
    ) -> int:
        return self.add_item(
            BatchItem(
                url=url,
                method=HttpMethod.PUT,
                data=data,
                response_type=response_type,
                context=context,
            )
        )

    def add_patch(
        self,
        url: str,
        data: Any,
        response_type: Any,
        context: RequestContext | None = None,
    ) -> int:
        return self.add_item(
            BatchItem(
                url=url,
                method=HttpMethod.PATCH,
                data=data,
                response_type=response_type,
                context=context,
            )
        )

    def add_delete(
        self, url: str, response_type: Any, context: RequestContext | None = None
    ) -> int:
        return self.add_item(
            BatchItem(
                url=url, method=HttpMethod.DELETE, response_type=response_type, context=context
            )
        )

    @property
    def items(self) -> tuple[BatchItem, ...]:
        return tuple(self._items)

    def __len__(self) -> int:
        return len(self._items)


class BatchResults:
    """Outcome of a batch, addressed by item index.

    Each index holds exactly one of: a decoded result or the exception that
    item failed with.
    """

    def __init__(self) -> None:
        self._results: dict[int, Any] = {}
        self._failures: dict[int, BaseException] = {}

    def set_result(self, index: int, result: Any) -> None:
        self._check_unset(index)
        self._results[index] = result

    def set_failure(self, index: int, error: BaseException) -> None:
        self._check_unset(index)
        self._failures[index] = error

    def _check_unset(self, index: int) -> None:
        if index in self._results or index in self._failures:
            raise ValueError(f"Outcome for index {index} already recorded")

    @overload
    def get(self, index: int) -> Any: ...

    @overload
    def get(self, index: int, expected_type: type[T]) -> T: ...

    def get(self, index: int, expected_type: Any = None) -> Any:
        """Get the result stored at ``index``.

        Args:
            index: Index returned when the item was added.
            expected_type: Optional type the result must be an instance of.

        Returns:
            The decoded result.

        Raises:
            KeyError: If no result is stored at ``index``. When the item
                failed, the failure is chained as the cause.
            TypeError: If the result is not an ``expected_type``.
        """
        if index not in self._results:
            raise KeyError(f"No result found at index {index}") from self._failures.get(index)
        result = self._results[index]
        if expected_type is not None and not isinstance(result, expected_type):
            raise TypeError(
                f"Result at index {index} is {type(result).__name__}, "
                f"not {expected_type.__name__}"
            )
        return result

    def error(self, index: int) -> BaseException | None:
        return self._failures.get(index)

    def succeeded(self, index: int) -> bool:
        return index in self._results

    @property
    def results(self) -> dict[int, Any]:
        return dict(self._results)

    @property
    def failures(self) -> dict[int, BaseException]:
        return dict(self._failures)

    @property
    def count(self) -> int:
        """Number of successful results."""
        return len(self._results)

    @property
    def failure_count(self) -> int:
        return len(self._failures)

    def __len__(self) -> int:
        return len(self._results) + len(self._failures)
