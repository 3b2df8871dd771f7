"""
Analyzer module.

Contains the IR definitions, the per-file normalizer and the global
reference resolver.
"""

from __future__ import annotations

from .ir_nodes import (
    AliasDef,
    ConstDef,
    EnumDef,
    FieldDef,
    GenericParam,
    GenericParamRef,
    ListType,
    MapType,
    ModuleIR,
    Named,
    Opaque,
    OptionalType,
    Primitive,
    PrimitiveKind,
    Reference,
    SerializationStrategy,
    StrategyKind,
    StructDef,
    StructShape,
    TupleShape,
    TupleType,
    TypeDefinition,
    TypeExpr,
    UnitShape,
    VariantDef,
)
from .normalizer import NormalizedModule, Normalizer
from .reference_resolver import GlobalResolver, ResolvedIR

__all__ = [
    "AliasDef",
    "ConstDef",
    "EnumDef",
    "FieldDef",
    "GenericParam",
    "GenericParamRef",
    "ListType",
    "MapType",
    "ModuleIR",
    "Named",
    "Opaque",
    "OptionalType",
    "Primitive",
    "PrimitiveKind",
    "Reference",
    "SerializationStrategy",
    "StrategyKind",
    "StructDef",
    "StructShape",
    "TupleShape",
    "TupleType",
    "TypeDefinition",
    "TypeExpr",
    "UnitShape",
    "VariantDef",
    "NormalizedModule",
    "Normalizer",
    "GlobalResolver",
    "ResolvedIR",
]
