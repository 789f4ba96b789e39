"""
Identifiers that may not be resolvable at synthesis time.

Imported load balancers only expose their ARN as a CloudFormation token, so the
"full name" CloudWatch needs as a dimension cannot always be derived while the
template is being assembled. Instead of embedding a placeholder string, an
Unresolved identifier is bound to a CloudFormation parameter that must be
supplied at deploy time.

CfnParameter documentation: https://docs.aws.amazon.com/cdk/api/v2/python/aws_cdk/CfnParameter.html
"""
import logging
from dataclasses import dataclass
from typing import Union

from aws_cdk import Annotations, CfnParameter, Stack

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Resolved:
    value: str


@dataclass(frozen=True)
class Unresolved:
    """An identifier that needs a later binding pass before the resource is usable."""

    name: str
    description: str = ""


Identifier = Union[Resolved, Unresolved]


def as_identifier(value, name, description=""):
    """Wrap an optional plain string: None becomes Unresolved(name)."""
    if isinstance(value, (Resolved, Unresolved)):
        return value
    if value:
        return Resolved(value)
    return Unresolved(name, description)


def bind(scope, identifier):
    """
    Return a value usable in a construct property.

    Resolved identifiers return their literal value. Unresolved identifiers are
    bound to a string CfnParameter on the enclosing stack (created once per name),
    and a synth warning is attached to the scope.
    """
    if isinstance(identifier, Resolved):
        return identifier.value

    stack = Stack.of(scope)
    parameter = stack.node.try_find_child(identifier.name)
    if parameter is None:
        parameter = CfnParameter(
            stack, identifier.name,
            type="String",
            description=identifier.description or f"Deploy-time value for {identifier.name}",
        )
        logger.warning(
            "Identifier %s is unresolved at synthesis; bound to deploy-time parameter",
            identifier.name,
        )
        Annotations.of(scope).add_warning(
            f"{identifier.name} is unresolved at synthesis time and must be supplied "
            f"as a CloudFormation parameter at deploy time"
        )
    return parameter.value_as_string
