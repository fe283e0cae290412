"""
Defines the core data types for the Lox runtime.

This module provides the environment chain used for lexical scoping, the
callable protocol shared by functions, classes and natives, the object model
(classes and instances), the two composite value types (lists and maps), and
the control signals that statement execution hands back to its caller.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Optional, TYPE_CHECKING
import collections.abc
import inspect

from lox.lox_errors import LoxRuntimeError

if TYPE_CHECKING:
    from lox import lox_ast as ast
    from lox.lox_interpreter import Interpreter
    from lox.lox_scanner import Token


# =================================================================
# Environments
# =================================================================

class Environment:
    """One scope frame: a name -> value mapping linked to its enclosing frame.

    The global frame is the only one without an enclosing frame. Frames are
    shared by reference between closures, bound methods and the interpreter,
    and stay alive for as long as anything reachable holds them.
    """
    def __init__(self, enclosing: Optional['Environment'] = None):
        self.values: Dict[str, Any] = {}
        self.enclosing = enclosing

    def define(self, name: str, value: Any):
        self.values[name] = value

    def get(self, name: 'Token') -> Any:
        env = self
        while env is not None:
            if name.lexeme in env.values:
                return env.values[name.lexeme]
            env = env.enclosing
        raise LoxRuntimeError(name, f"Undefined variable '{name.lexeme}'.")

    def assign(self, name: 'Token', value: Any):
        env = self
        while env is not None:
            if name.lexeme in env.values:
                env.values[name.lexeme] = value
                return
            env = env.enclosing
        raise LoxRuntimeError(name, f"Undefined variable '{name.lexeme}'.")

    def ancestor(self, distance: int) -> 'Environment':
        env = self
        for _ in range(distance):
            env = env.enclosing
        return env

    def get_at(self, distance: int, name: str) -> Any:
        return self.ancestor(distance).values[name]

    def assign_at(self, distance: int, name: 'Token', value: Any):
        self.ancestor(distance).values[name.lexeme] = value

    def __contains__(self, name: str) -> bool:
        return name in self.values

    def __repr__(self) -> str:
        text = repr(self.values)
        if self.enclosing is not None:
            text += f" -> {self.enclosing!r}"
        return text


# =================================================================
# Values
# =================================================================

def is_truthy(value: Any) -> bool:
    """Only nil and false are falsy."""
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    return True


def is_number(value: Any) -> bool:
    # bool is a subclass of int, never of float.
    return isinstance(value, float)


def is_equal(a: Any, b: Any) -> bool:
    """Lox equality: by value for primitives and containers, by identity otherwise."""
    if a is None or b is None:
        return a is None and b is None
    if isinstance(a, bool) or isinstance(b, bool):
        return isinstance(a, bool) and isinstance(b, bool) and a == b
    if is_number(a) or is_number(b):
        return is_number(a) and is_number(b) and a == b
    if isinstance(a, str) or isinstance(b, str):
        return isinstance(a, str) and isinstance(b, str) and a == b
    if isinstance(a, (LoxList, LoxMap)):
        return a == b
    return a is b


class LoxList(collections.abc.MutableSequence):
    """An ordered, mutable sequence of Lox values, shared by reference."""
    def __init__(self, elements: Iterable[Any] = ()):
        self.elements = list(elements)

    def __getitem__(self, index):
        return self.elements[index]

    def __setitem__(self, index, value):
        self.elements[index] = value

    def __delitem__(self, index):
        del self.elements[index]

    def __len__(self) -> int:
        return len(self.elements)

    def insert(self, index, value):
        self.elements.insert(index, value)

    def __eq__(self, other):
        if not isinstance(other, LoxList):
            return NotImplemented
        if self is other:
            return True
        return len(self) == len(other) and all(is_equal(a, b) for a, b in zip(self, other))

    __hash__ = None

    def __repr__(self) -> str:
        return f"LoxList({self.elements!r})"


class LoxMap(collections.abc.MutableMapping):
    """A mapping from value-keys to Lox values, shared by reference.

    Keys are normalized so that nil, booleans, numbers and strings compare by
    value (true and 1 are different keys) and objects compare by identity.
    Lists and maps are mutable and therefore rejected as keys.
    """
    def __init__(self):
        # normalized key -> (original key, value)
        self._entries: Dict[tuple, tuple] = {}

    @staticmethod
    def is_valid_key(key: Any) -> bool:
        return not isinstance(key, (LoxList, LoxMap))

    @staticmethod
    def _normalize(key: Any) -> tuple:
        if key is None:
            return ("nil",)
        if isinstance(key, bool):
            return ("bool", key)
        if is_number(key):
            return ("num", key)
        if isinstance(key, str):
            return ("str", key)
        if isinstance(key, (LoxList, LoxMap)):
            raise TypeError("Lists and maps cannot be used as map keys.")
        return ("ref", id(key))

    def __getitem__(self, key):
        return self._entries[self._normalize(key)][1]

    def __setitem__(self, key, value):
        self._entries[self._normalize(key)] = (key, value)

    def __delitem__(self, key):
        del self._entries[self._normalize(key)]

    def __contains__(self, key) -> bool:
        if not self.is_valid_key(key):
            return False
        return self._normalize(key) in self._entries

    def __iter__(self):
        for key, _ in self._entries.values():
            yield key

    def __len__(self) -> int:
        return len(self._entries)

    def items(self):
        return list(self._entries.values())

    def __eq__(self, other):
        if not isinstance(other, LoxMap):
            return NotImplemented
        if self is other:
            return True
        if self._entries.keys() != other._entries.keys():
            return False
        return all(is_equal(value, other._entries[k][1]) for k, (_, value) in self._entries.items())

    __hash__ = None

    def __repr__(self) -> str:
        return f"LoxMap({dict(self.items())!r})"


# =================================================================
# Control signals
# =================================================================

class ControlSignal:
    """Non-local control transfer returned (not raised) by statement execution.

    Loops consume break/continue, function calls consume return; anything else
    is handed further up unchanged.
    """
    __slots__ = ("keyword",)

    def __init__(self, keyword: 'Token'):
        self.keyword = keyword


class ReturnSignal(ControlSignal):
    __slots__ = ("value",)

    def __init__(self, keyword: 'Token', value: Any = None):
        super().__init__(keyword)
        self.value = value

    def __repr__(self) -> str:
        return f"ReturnSignal({self.value!r})"


class BreakSignal(ControlSignal):
    __slots__ = ()


class ContinueSignal(ControlSignal):
    __slots__ = ()


# =================================================================
# Callables and the object model
# =================================================================

class LoxCallable(ABC):
    """Abstract base class for everything a Lox call expression can invoke."""

    @abstractmethod
    def arity(self) -> int:
        raise NotImplementedError

    @abstractmethod
    def call(self, interpreter: 'Interpreter', arguments: List[Any]) -> Any:
        raise NotImplementedError


class LoxFunction(LoxCallable):
    """A user-defined function or method.

    This is a closure, bundling the declaration with the environment that was
    active when it was declared. Every call gets a fresh frame chained to that
    same environment.
    """
    def __init__(self, declaration: 'ast.Function', closure: Environment, is_initializer: bool = False):
        self.declaration = declaration
        self.closure = closure
        self.is_initializer = is_initializer

    @property
    def name(self) -> str:
        return self.declaration.name.lexeme

    def bind(self, instance: 'LoxInstance') -> 'LoxFunction':
        environment = Environment(self.closure)
        environment.define("this", instance)
        return LoxFunction(self.declaration, environment, self.is_initializer)

    def arity(self) -> int:
        return len(self.declaration.params)

    def call(self, interpreter: 'Interpreter', arguments: List[Any]) -> Any:
        environment = Environment(self.closure)
        for param, argument in zip(self.declaration.params, arguments):
            environment.define(param.lexeme, argument)

        signal = interpreter.execute_block(self.declaration.body, environment)

        if isinstance(signal, (BreakSignal, ContinueSignal)):
            raise LoxRuntimeError(
                signal.keyword, f"Can't use '{signal.keyword.lexeme}' outside of a loop."
            )
        # An initializer always yields the instance it was bound to.
        if self.is_initializer:
            return self.closure.get_at(0, "this")
        if isinstance(signal, ReturnSignal):
            return signal.value
        return None

    def __repr__(self) -> str:
        return f"<fn {self.name}>"


class LoxClass(LoxCallable):
    """A class: a name, an optional superclass and a method table.

    Calling a class constructs an instance and runs `init` on it if the class
    or one of its ancestors defines one.
    """
    INITIALIZER = "init"

    def __init__(self, name: str, superclass: Optional['LoxClass'], methods: Dict[str, LoxFunction]):
        self.name = name
        self.superclass = superclass
        self.methods = methods

    def find_method(self, name: str) -> Optional[LoxFunction]:
        klass = self
        while klass is not None:
            if name in klass.methods:
                return klass.methods[name]
            klass = klass.superclass
        return None

    def arity(self) -> int:
        initializer = self.find_method(self.INITIALIZER)
        if initializer is None:
            return 0
        return initializer.arity()

    def call(self, interpreter: 'Interpreter', arguments: List[Any]) -> Any:
        instance = LoxInstance(self)
        initializer = self.find_method(self.INITIALIZER)
        if initializer is not None:
            initializer.bind(instance).call(interpreter, arguments)
        return instance

    def __repr__(self) -> str:
        return self.name


class LoxInstance:
    """An instance of a LoxClass with its own mutable fields."""
    def __init__(self, klass: LoxClass):
        self.klass = klass
        self.fields: Dict[str, Any] = {}

    def get(self, name: 'Token') -> Any:
        if name.lexeme in self.fields:
            return self.fields[name.lexeme]
        method = self.klass.find_method(name.lexeme)
        if method is not None:
            return method.bind(self)
        raise LoxRuntimeError(name, f"Undefined property '{name.lexeme}'.")

    def set(self, name: 'Token', value: Any):
        self.fields[name.lexeme] = value

    def __repr__(self) -> str:
        return f"{self.klass.name} instance"


class NativeFunction(LoxCallable):
    """Wraps a Python callable so it satisfies the Lox call contract.

    Arity comes from the wrapped callable's positional parameters.
    """
    def __init__(self, name: str, func):
        self.name = name
        self.func = func
        params = inspect.signature(func).parameters.values()
        self._arity = sum(
            1 for p in params
            if p.kind in (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD)
        )

    def arity(self) -> int:
        return self._arity

    def call(self, interpreter: 'Interpreter', arguments: List[Any]) -> Any:
        return self.func(*arguments)

    def __repr__(self) -> str:
        return "<native fn>"

