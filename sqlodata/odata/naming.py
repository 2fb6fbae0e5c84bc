"""
sqlodata.odata.naming - Table and navigation property naming rules
===================================================================
"""

from __future__ import annotations


def pluralize(word: str) -> str:
    """
    English plural used to match ``<x>_id`` columns against table names.

    Examples
    --------
    >>> pluralize("category")
    'categories'
    >>> pluralize("box")
    'boxes'
    >>> pluralize("customer")
    'customers'
    """
    if word.endswith("y"):
        return word[:-1] + "ies"
    if word.endswith(("s", "x", "z", "ch", "sh")):
        return word + "es"
    return word + "s"


def singularize(word: str) -> str:
    """
    Inverse of :func:`pluralize` for the common cases.

    Examples
    --------
    >>> singularize("categories")
    'category'
    >>> singularize("boxes")
    'box'
    >>> singularize("addresses")
    'addresse'
    >>> singularize("class")
    'class'
    """
    if word.endswith("ies"):
        return word[:-3] + "y"
    if word.endswith("es") and not word.endswith("ses"):
        return word[:-2]
    if word.endswith("s") and not word.endswith("ss"):
        return word[:-1]
    return word


def pascal_case(name: str) -> str:
    """
    Convert a snake_case table name to PascalCase.

    >>> pascal_case("order_items")
    'OrderItems'
    """
    return "".join(part[:1].upper() + part[1:] for part in name.split("_") if part)


def strip_schema(table: str) -> str:
    """Drop a ``schema.`` prefix from a table reference."""
    return table.split(".")[-1]


def belongs_to_name(target_table: str) -> str:
    """Navigation property for a foreign key: singular target, e.g. ``Customer``."""
    return pascal_case(singularize(strip_schema(target_table)))


def has_many_name(source_table: str) -> str:
    """Navigation property for the reverse side: plural source, e.g. ``Purchases``."""
    return pascal_case(strip_schema(source_table))
