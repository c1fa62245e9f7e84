from controller.src.permissions.grants import (
    Grant,
    GrantModel,
    BUILD_PRINCIPAL,
    PIPELINE_PRINCIPAL,
    MAINTENANCE_PRINCIPAL,
    update_code_principal,
)

__all__ = [
    "Grant",
    "GrantModel",
    "BUILD_PRINCIPAL",
    "PIPELINE_PRINCIPAL",
    "MAINTENANCE_PRINCIPAL",
    "update_code_principal",
]
