"""
QuarkDSL AST Nodes
==================

Tagged-variant data model produced by the parser and consumed by the compiler.

Nodes are plain dataclasses, so two parses of the same source compare equal.
"""

from enum import Enum, auto
from dataclasses import dataclass, field
from typing import List, Optional, Union


# =============================================================================
# DOMAINS & TYPES
# =============================================================================

class Domain(Enum):
    """Execution domain of a function. Informational only inside the VM."""
    CLASSICAL = "classical"
    GPU = "gpu"
    QUANTUM = "quantum"


class TypeKind(Enum):
    INT = auto()
    FLOAT = auto()
    BOOL = auto()
    QUBIT = auto()
    VOID = auto()
    QSTATE = auto()
    ARRAY = auto()
    TENSOR = auto()


@dataclass
class Type:
    """
    A source-level type annotation.

    Attributes:
        kind: The type constructor
        element: Element type for ARRAY and TENSOR
        size: Optional fixed length for ARRAY ([int; 4])
    """
    kind: TypeKind
    element: Optional["Type"] = None
    size: Optional[int] = None

    def __str__(self) -> str:
        if self.kind == TypeKind.ARRAY:
            if self.size is not None:
                return f"[{self.element}; {self.size}]"
            return f"[{self.element}]"
        if self.kind == TypeKind.TENSOR:
            return f"tensor<{self.element}>"
        return self.kind.name.lower()


# =============================================================================
# OPERATORS
# =============================================================================

class BinaryOp(Enum):
    ADD = "+"
    SUB = "-"
    MUL = "*"
    DIV = "/"
    MOD = "%"
    EQ = "=="
    NE = "!="
    LT = "<"
    LE = "<="
    GT = ">"
    GE = ">="
    AND = "&&"
    OR = "||"


class UnaryOp(Enum):
    NEG = "-"
    NOT = "!"


# =============================================================================
# EXPRESSIONS
# =============================================================================

@dataclass
class IntLiteral:
    value: int


@dataclass
class FloatLiteral:
    value: float


@dataclass
class BoolLiteral:
    value: bool


@dataclass
class Variable:
    name: str


@dataclass
class Binary:
    op: BinaryOp
    left: "Expression"
    right: "Expression"


@dataclass
class Unary:
    op: UnaryOp
    operand: "Expression"


@dataclass
class Call:
    """Call by name; the compiler decides builtin / gate / user function."""
    function: str
    args: List["Expression"] = field(default_factory=list)


@dataclass
class Index:
    array: "Expression"
    index: "Expression"


@dataclass
class ArrayLiteral:
    elements: List["Expression"] = field(default_factory=list)


@dataclass
class MapExpr:
    """map(function, array): apply a one-argument function to every element."""
    function: str
    array: "Expression"


Expression = Union[
    IntLiteral, FloatLiteral, BoolLiteral, Variable, Binary, Unary,
    Call, Index, ArrayLiteral, MapExpr,
]


# =============================================================================
# STATEMENTS
# =============================================================================

@dataclass
class Let:
    name: str
    value: Expression
    ty: Optional[Type] = None


@dataclass
class Assign:
    """target = value, or target[index] = value when index is set."""
    target: str
    value: Expression
    index: Optional[Expression] = None


@dataclass
class Return:
    value: Expression


@dataclass
class ExprStatement:
    expr: Expression


@dataclass
class For:
    """for var in start..end { body } over the half-open range [start, end)."""
    var: str
    start: Expression
    end: Expression
    body: List["Statement"] = field(default_factory=list)


@dataclass
class If:
    condition: Expression
    then_body: List["Statement"] = field(default_factory=list)
    else_body: Optional[List["Statement"]] = None


Statement = Union[Let, Assign, Return, ExprStatement, For, If]


# =============================================================================
# PROGRAM
# =============================================================================

@dataclass
class Param:
    name: str
    ty: Type


@dataclass
class Function:
    name: str
    params: List[Param]
    return_type: Type
    body: List[Statement]
    domain: Domain = Domain.CLASSICAL


@dataclass
class Program:
    """Functions in source order. Names are not checked for uniqueness here."""
    functions: List[Function] = field(default_factory=list)

    def function_names(self) -> List[str]:
        return [f.name for f in self.functions]
