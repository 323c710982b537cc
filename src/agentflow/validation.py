from agentflow.errors import InvalidSourceError
from agentflow.models import Model, ModelFamily
from agentflow.source import Source


def check_source(model: Model, source: Source) -> None:
    """Fail unless *source* can serve *model*.

    Custom models are accepted by any source; every other model must
    belong to the same family as the source.

    Raises:
        InvalidSourceError: On a family mismatch.
    """
    if model.family is ModelFamily.CUSTOM:
        return
    if model.family is not source.family:
        raise InvalidSourceError(
            f"Model '{model.id}' ({model.family.value}) cannot be used "
            f"with a {source.family.value} source"
        )
