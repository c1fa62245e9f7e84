from controller.src.registry.compute_units import (
    ComputeUnitRegistry,
    InMemoryComputeUnitRegistry,
    LambdaComputeUnitRegistry,
)

__all__ = [
    "ComputeUnitRegistry",
    "InMemoryComputeUnitRegistry",
    "LambdaComputeUnitRegistry",
]
