"""
Lazy Import Utilities.

The OpenAI SDK is only needed when a command actually talks to the model.
lazy_property defers constructing such clients until first access:

    class OpenAIClient:
        @lazy_property
        def client(self):
            from openai import OpenAI
            return OpenAI(api_key=self.api_key)

    llm = OpenAIClient(api_key="...")   # nothing imported yet
    llm.client                          # imports and caches
"""

from functools import wraps
from typing import Any, Callable, cast


def lazy_property(import_func: Callable[..., Any]) -> Any:
    """Decorator for lazy-loaded, cached properties.

    The decorated function should import and initialize the dependency.
    The result is stored on the instance and returned on later accesses.

    Args:
        import_func: Function that imports and returns the dependency

    Returns:
        A property that lazy-loads the dependency
    """
    attr_name = f"_{import_func.__name__}_cached"

    @wraps(import_func)
    def wrapper(self: Any) -> Any:
        if not hasattr(self, attr_name):
            setattr(self, attr_name, import_func(self))
        return getattr(self, attr_name)

    return cast(Any, property(wrapper))
