"""Resource and service lookups shared by availability and the commit protocol."""

from typing import Optional

from .errors import NotFoundError, ValidationError


def resolve_resource(store, resource_id: Optional[int] = None):
    """
    The resource a request targets. Without an explicit id the tenant's
    sole active resource is used; with several the caller has to choose.
    """
    if resource_id is None:
        resources = store.active_resources()
        if not resources:
            raise NotFoundError("No bookable resource configured")
        if len(resources) > 1:
            raise ValidationError(
                "resource_id is required",
                fields={"resource_id": "Required when more than one resource is bookable"},
            )
        return resources[0]

    resource = store.get_resource(resource_id)
    if not resource or not resource.is_active:
        raise NotFoundError("Resource not found", resource_id=resource_id)
    return resource


def resolve_service(store, service_id: Optional[int] = None, name: Optional[str] = None):
    if service_id is not None:
        service = store.get_service(service_id)
    elif name:
        service = store.find_service(name)
    else:
        raise ValidationError("service is required", fields={"service": "Required"})

    if not service or not service.is_active:
        raise ValidationError("Unknown service", fields={"service": "Not in the service catalog"})
    return service


def duration_for(service, settings) -> int:
    if service is None or not service.duration_minutes:
        return settings.default_duration_minutes
    return service.duration_minutes
