"""Remote resource client boundary.

The tree engine only depends on the ``ResourceClient`` protocol.
``HerokuClient`` is the default implementation over httpx.
"""

from herotree.client.heroku import HerokuClient, collection_path
from herotree.client.protocol import Collection, ResourceClient
from herotree.client.records import (
    AddonRecord,
    AppRecord,
    CouplingRecord,
    DynoRecord,
    FormationRecord,
    PipelineRecord,
    RemoteRecord,
)

__all__ = [
    "Collection",
    "ResourceClient",
    "HerokuClient",
    "collection_path",
    # Records
    "RemoteRecord",
    "AppRecord",
    "DynoRecord",
    "AddonRecord",
    "PipelineRecord",
    "CouplingRecord",
    "FormationRecord",
]
