"""GraphQL query and variable shape checks.

Validation is syntactic only: the document must parse, and every variable an
operation declares as non-null must be supplied. Variable types are not
checked against the upstream schema.
"""

from typing import Any, Dict, List

from graphql import GraphQLError, parse
from graphql.language import DocumentNode, NonNullTypeNode, OperationDefinitionNode

from tallymcp.domain.models.common import QueryText


def is_valid_query(query: QueryText) -> bool:
    """Returns True if ``query`` parses as a GraphQL document."""
    try:
        parse(query)
    except GraphQLError:
        return False
    return True


def required_variable_names(document: DocumentNode) -> List[str]:
    """Names of the non-null variables declared by the document's operations."""
    names = []
    for definition in document.definitions:
        if not isinstance(definition, OperationDefinitionNode):
            continue
        for var_def in definition.variable_definitions or ():
            if isinstance(var_def.type, NonNullTypeNode):
                names.append(var_def.variable.name.value)
    return names


def has_required_variables(query: QueryText, variables: Dict[str, Any]) -> bool:
    """Returns True if every required variable of ``query`` is in ``variables``.

    An unparseable query fails this check as well.
    """
    try:
        document = parse(query)
    except GraphQLError:
        return False
    return all(name in variables for name in required_variable_names(document))
