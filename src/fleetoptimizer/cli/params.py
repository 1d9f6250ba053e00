"""Click option callbacks backed by the shared Validator"""

import click

from ..core.exceptions import ValidationError
from ..core.units import parse_memory
from ..core.validation import Validator


def validated(check):
    """Wrap a Validator check as an option callback, reporting failures as bad parameters"""
    def callback(ctx, param, value):
        if value is None:
            return value
        try:
            return check(value, param)
        except ValidationError as e:
            raise click.BadParameter(str(e)) from e
    return callback


architecture_param = validated(lambda value, param: Validator.validate_architecture(value))
capacity_class_param = validated(lambda value, param: Validator.validate_capacity_class(value))
positive_param = validated(lambda value, param: Validator.validate_positive(value, param.name))
# Kubernetes quantity such as 16Gi, returned in GiB
memory_param = validated(
    lambda value, param: Validator.validate_positive(parse_memory(value), param.name)
)
