"""
State-based method dispatch (a.k.a. "control-path" templating) via decorators.

This module provides a small mechanism for routing a single method call to one
of several registered implementations based on an attribute of the receiving
object.

Core idea
---------
- You define a *base* method on a class (its signature becomes the canonical
  one, and its docstring is kept on the installed wrapper).
- You register one "control path" per state value for that method, keyed by
  (ClassName, MethodName, StateVal).
- At runtime, the wrapper reads the state attribute of `self` and calls the
  registered implementation as `impl(self, *args, **kwargs)`.

In tapegrad the state is the device type of a storage backend, so
`Backend.matmul` is a single public method whose body is chosen per device.

Important notes
---------------
- The first registration for a method replaces it on the class with the
  dispatching wrapper.
- Registered implementations are stored in a closure-local mapping owned by
  `create_path_builder()`. Different builders do not share mappings.
"""

from typing import (
    Callable,
    Hashable,
    Optional,
    Dict,
    Type,
    Any,
)
from typing_extensions import ParamSpec, TypeVar
from collections import namedtuple
from functools import wraps

P = ParamSpec("P")
R = TypeVar("R")

MissingPathFactory = Callable[[str, Any], Exception]


def create_path_builder(
    state_attr: str = "_state",
) -> Callable[
    [Type, Callable[P, R], Hashable, Optional[MissingPathFactory]],
    Callable[[Callable[P, R]], Callable[P, R]],
]:
    """
    Create and return a "path builder" used to register stateful control paths.

    The returned function (`templator`) is used like this:

        decorator = create_path_builder("kind")

        class MyClass:
            kind = "A"

            def foo(self, x: int) -> int: ...

        @decorator(MyClass, MyClass.foo, "A")
        def foo_A(self, x: int) -> int:
            ...

    Calling `MyClass().foo(1)` dispatches to `foo_A` because `self.kind == "A"`.

    Parameters
    ----------
    state_attr : str
        Name of the attribute (or property) read from `self` to select the
        implementation. Defaults to "_state".

    Returns
    -------
    Callable
        A function with signature

            (cls, method, state, trap_exception=None) -> decorator
    """

    MethodKey = namedtuple(
        "MethodKey",
        [
            "ClassName",
            "MethodName",
            "StateVal",
        ],
    )

    methods_map: Dict[MethodKey, Callable] = {}
    """Mapping from (class, method, state) keys to registered implementations."""

    installed: Dict[tuple, Callable] = {}
    """Dispatch wrappers already installed, keyed by (class, method name)."""

    def templator(
        cls: Type,
        method: Callable[P, R],
        state: Hashable,
        trap_exception: Optional[MissingPathFactory] = None,
    ) -> Callable[[Callable[P, R]], Callable[P, R]]:
        """
        Build a decorator that registers a control path implementation.

        Parameters
        ----------
        cls : Type
            The class whose method is dispatched.
        method : Callable[P, R]
            The base method being templated (or a wrapper previously installed
            for it, which carries the same name).
        state : Hashable
            The state value that selects the decorated implementation.
        trap_exception : Optional[Callable[[str, Any], Exception]]
            Factory invoked as `trap_exception(method_name, state)` when no
            implementation is registered for the current state; the returned
            exception is raised. If None, `NotImplementedError` is raised.

        Returns
        -------
        Callable[[Callable[P, R]], Callable[P, R]]
            Decorator registering `sub_method` for `(cls, method, state)`.

        Raises
        ------
        TypeError
            If `state` is not hashable.
        """
        try:
            hash(state)
        except TypeError:
            raise TypeError(
                f"The argument for 'state' must be hashable. Got {repr(state)}"
            )

        name = method.__name__
        smk: MethodKey = MethodKey(cls.__name__, name, state)

        def decorator(sub_method: Callable[P, R]) -> Callable[P, R]:
            methods_map[smk] = sub_method

            if (cls, name) in installed:
                return sub_method

            @wraps(method)
            def wrapper(self: Any, *args: P.args, **kwargs: P.kwargs) -> Any:
                if not hasattr(self, state_attr):
                    raise NotImplementedError(
                        "{} is missing attribute {}".format(type(self), repr(state_attr))
                    )
                cur = getattr(self, state_attr)
                if sm := methods_map.get(MethodKey(cls.__name__, name, cur)):
                    return sm(self, *args, **kwargs)
                if trap_exception is None:
                    raise NotImplementedError(
                        "Missing control path (state={}) for {}".format(
                            repr(cur), repr(name)
                        )
                    )
                raise trap_exception(name, cur)

            installed[(cls, name)] = wrapper
            setattr(cls, name, wrapper)
            return sub_method

        return decorator

    return templator
