# core/module.py
from __future__ import annotations

import functools
import inspect
import numbers
from dataclasses import dataclass, replace
from types import MappingProxyType
from typing import Any, Callable, ClassVar, Dict, Mapping, Optional, Type, get_type_hints

from prefect import flow, task

from ..marginals.distribution import Distribution

__all__ = [
    "InputSpec",
    "Module",
]

_MISSING = object()


@dataclass(frozen=True)
class InputSpec:
    """Declared type, requirement and default of one run-function input.

    Attributes:
        type: Expected Python type, or None to accept anything.
        required: Whether callers must pass the input explicitly.
        default: Value used when the input is omitted; `_MISSING` if none.
    """
    type: Optional[Type] = None
    required: bool = False
    default: Any = _MISSING

    @property
    def has_default(self) -> bool:
        return self.default is not _MISSING

    def merged_with(self, override: InputSpec) -> InputSpec:
        """This spec with the type and default of `override` laid over it."""
        return replace(
            self,
            type=override.type or self.type,
            required=override.required,
            default=override.default if override.has_default else self.default,
        )


def _accepts(expected: type, value: Any) -> bool:
    # a float input also takes ints, but never bools
    if expected is float:
        return isinstance(value, numbers.Real) and not isinstance(value, bool)
    return isinstance(value, expected)


def _spec_from_parameter(param: inspect.Parameter, hint: Any) -> InputSpec:
    has_default = param.default is not inspect.Parameter.empty
    return InputSpec(
        type=hint if isinstance(hint, type) else None,
        required=not has_default,
        default=param.default if has_default else _MISSING,
    )


class Module(object):
    """Base class for margpipe pipeline modules.

    A module bundles a few related computations over shared dependencies,
    for example summary tables built from one fitted model. Each computation
    is registered with :meth:`run_func` and becomes a Prefect task (or flow)
    attribute of the module.

    Typical usage:
        1. Subclass :class:`Module` and list required dependencies in
           :pyattr:`DEPENDENCIES` (name -> expected type).
        2. Optionally declare module-wide input defaults with :meth:`set_input`.
        3. Register computations with :meth:`run_func`.
        4. Call ``module.<name>(...)`` to run through Prefect, or
           ``module.<name>.fn(...)`` to run the plain function.

    Notes:
        - A run-function parameter whose name matches a dependency is filled
          with that dependency and is not an input.
        - A parameter annotated with a :class:`Distribution` subclass accepts
          any distribution that class can ``from_distribution``; scipy frozen
          distributions passed to a ``Marginal`` parameter are discretized.

    Attributes:
        DEPENDENCIES: Required dependency names and their types.
        dependencies: The injected dependency instances.
        inputs: Module-wide input specifications by name.
    """

    DEPENDENCIES: ClassVar[Mapping[str, Type]] = MappingProxyType({})

    def __init__(self, conversion_fit_kwargs: Optional[dict] = None, **dependencies: Any):
        """Checks and stores the dependencies.

        Args:
            conversion_fit_kwargs: Keyword arguments passed to
                ``from_distribution`` whenever an argument is converted.
            **dependencies: Dependency instances keyed by name.

        Raises:
            RuntimeError: If a declared dependency is missing or an undeclared one is given.
            TypeError: If a dependency has the wrong type.
        """
        absent = [dep for dep in self.DEPENDENCIES if dep not in dependencies]
        if absent:
            raise RuntimeError(f"{type(self).__name__} requires dependencies {absent}")

        extra = [dep for dep in dependencies if dep not in self.DEPENDENCIES]
        if extra:
            raise RuntimeError(
                f"{type(self).__name__} does not take dependencies {extra}; "
                f"declared: {list(self.DEPENDENCIES)}"
            )

        for dep, instance in dependencies.items():
            expected = self.DEPENDENCIES[dep]
            if isinstance(expected, type) and not isinstance(instance, expected):
                raise TypeError(
                    f"dependency {dep!r} must be a {expected.__name__}; got {type(instance).__name__}"
                )

        self.dependencies: Dict[str, Any] = dict(dependencies)
        self.inputs: Dict[str, InputSpec] = {}
        self._run_funcs: Dict[str, Callable] = {}
        self._run_specs: Dict[str, Dict[str, InputSpec]] = {}
        self._conv_fit_kwargs = dict(conversion_fit_kwargs or {})

    def set_input(self, **inputs: Any) -> None:
        """Declares module-wide inputs.

        Values are :class:`InputSpec` instances or plain defaults. A
        module-wide spec overrides the signature of every run function
        registered afterwards that has a parameter of the same name.

        Example:
            >>> self.set_input(probability=InputSpec(type=float, default=0.9), n_points=512)
        """
        for key, value in inputs.items():
            self.inputs[key] = value if isinstance(value, InputSpec) else InputSpec(default=value)

    def input_specs(self, run_name: str) -> Dict[str, InputSpec]:
        """Resolved input specifications of a registered run function."""
        return dict(self._run_specs[run_name])

    def _resolve_specs(self, sig: inspect.Signature, hints: Mapping[str, Any]) -> Dict[str, InputSpec]:
        specs: Dict[str, InputSpec] = {}
        for pname, param in sig.parameters.items():
            if pname == "self" or pname in self.dependencies:
                continue
            spec = _spec_from_parameter(param, hints.get(pname))
            if pname in self.inputs:
                spec = spec.merged_with(self.inputs[pname])
            specs[pname] = spec
        return specs

    def _convert(self, pname: str, expected: Type[Distribution], value: Any) -> Distribution:
        if isinstance(value, expected):
            return value
        converted = expected.from_distribution(value, **self._conv_fit_kwargs)
        if not isinstance(converted, expected):
            raise TypeError(
                f"converting {pname!r} gave {type(converted).__name__}, not {expected.__name__}"
            )
        return converted

    def run_func(
            self,
            f: Callable,
            *,
            name: Optional[str] = None,
            as_task: bool = True,
            ) -> Callable:
        """Registers `f` as a Prefect task or flow named `name`.

        Calls to the registered function take keyword arguments only. Each
        call fills omitted inputs from their defaults, rejects missing and
        unknown inputs, checks annotated types (converting distribution
        arguments), then calls `f` with the matching dependencies added.

        Args:
            f: The computation.
            name: Attribute name on the module; defaults to ``f.__name__``.
            as_task: Register a Prefect task if True, a flow if False.

        Returns:
            Callable: The Prefect task or flow, also set as ``self.<name>``.

        Raises:
            RuntimeError: If `name` is already registered.
        """
        run_name = name or f.__name__
        if run_name in self._run_funcs:
            raise RuntimeError(f"{run_name!r} is already a run function of this module")

        sig = inspect.signature(f)
        specs = self._resolve_specs(sig, get_type_hints(f))
        self._run_specs[run_name] = specs
        injected = [p for p in sig.parameters if p in self.dependencies]

        def bind(kwargs: Dict[str, Any]) -> Dict[str, Any]:
            unknown = sorted(set(kwargs) - set(specs))
            if unknown:
                raise TypeError(f"{run_name}() got unknown inputs {unknown}; accepts {sorted(specs)}")

            bound = {}
            for pname, spec in specs.items():
                if pname in kwargs:
                    value = kwargs[pname]
                elif spec.has_default and not spec.required:
                    value = spec.default
                else:
                    raise TypeError(f"{run_name}() missing required input {pname!r}")

                if spec.type is None:
                    pass
                elif issubclass(spec.type, Distribution):
                    value = self._convert(pname, spec.type, value)
                elif not _accepts(spec.type, value):
                    raise TypeError(
                        f"{run_name}() input {pname!r} must be {spec.type.__name__}; "
                        f"got {type(value).__name__}"
                    )
                bound[pname] = value
            return bound

        @functools.wraps(f)
        def wrapper(**kwargs):
            bound = bind(kwargs)
            for dep in injected:
                bound[dep] = self.dependencies[dep]
            return f(**bound)

        # Prefect sees only the declared inputs, untyped; checks happen in bind()
        wrapper.__signature__ = sig.replace(parameters=[
            p.replace(kind=inspect.Parameter.KEYWORD_ONLY, annotation=inspect.Parameter.empty)
            for p in sig.parameters.values() if p.name in specs
        ], return_annotation=inspect.Signature.empty)
        wrapper.__annotations__ = {}
        del wrapper.__wrapped__

        registered = task(wrapper) if as_task else flow(validate_parameters=False)(wrapper)
        self._run_funcs[run_name] = registered
        setattr(self, run_name, registered)
        return registered

    @property
    def run_funcs(self) -> Dict[str, Callable]:
        """Registered run functions by name."""
        return dict(self._run_funcs)

    def __repr__(self):
        return (
            f"<{type(self).__name__} dependencies={list(self.dependencies)} "
            f"inputs={list(self.inputs)} run_funcs={list(self._run_funcs)}>"
        )

    def __str__(self):
        def listing(names):
            return ", ".join(names) or "None"

        return "\n".join([
            f"{type(self).__name__}:",
            f"  Dependencies: {listing(self.dependencies)}",
            f"  Inputs: {listing(self.inputs)}",
            f"  Run Functions: {listing(self._run_funcs)}",
        ])
