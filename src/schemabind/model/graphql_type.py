QUERY_TYPE = "Query"
MUTATION_TYPE = "Mutation"

ROOT_TYPES = (QUERY_TYPE, MUTATION_TYPE)

BUILTIN_SCALARS = ("Int", "Float", "String", "Boolean", "ID")

# Produced for numeric hints that do not say whether they are integral
AMBIGUOUS_NUMERIC_TYPES = frozenset({"Number", "Numeric"})


def is_root_type(type_name: str) -> bool:
    return type_name in ROOT_TYPES


def is_ambiguous_numeric_type(type_name: str) -> bool:
    return type_name in AMBIGUOUS_NUMERIC_TYPES
