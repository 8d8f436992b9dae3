"""Discovery: static extraction of PHP class shapes."""

from larch.discovery.index import DiscoveryError, ProjectIndex, SourceRoot, in_namespace
from larch.discovery.models import (
    ClassDescriptor,
    ImportDescriptor,
    MethodDescriptor,
    ParameterDescriptor,
    PropertyDescriptor,
)

__all__ = [
    "ClassDescriptor",
    "DiscoveryError",
    "ImportDescriptor",
    "MethodDescriptor",
    "ParameterDescriptor",
    "ProjectIndex",
    "PropertyDescriptor",
    "SourceRoot",
    "in_namespace",
]
