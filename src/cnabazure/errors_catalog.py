"""Actionable error catalog for the CNAB Azure driver."""

from typing import Dict

_ERROR_MESSAGES: Dict[str, Dict[str, str]] = {
    "missing_rg_or_location": {
        "what": (
            "Driver requires CNAB_AZURE_LOCATION environment variable or an existing "
            "Resource Group in CNAB_AZURE_RESOURCE_GROUP."
        ),
        "next": "Set CNAB_AZURE_LOCATION, CNAB_AZURE_RESOURCE_GROUP, or both.",
    },
    "unsupported_region": {
        "what": "Azure Container Instances is not available in location '{location}'.",
        "next": "Choose a location listed by `az provider show -n Microsoft.ContainerInstance`.",
    },
    "missing_state_store": {
        "what": "Bundle declares {count} output(s) but no state file share is configured.",
        "next": (
            "Set CNAB_AZURE_STATE_FILESHARE, CNAB_AZURE_STATE_STORAGE_ACCOUNT_NAME "
            "and CNAB_AZURE_STATE_STORAGE_ACCOUNT_KEY."
        ),
    },
    "no_credentials": {
        "what": "Cannot login to Azure - no valid credentials provided or available.",
        "next": "Set service principal variables, CNAB_AZURE_APP_ID, or run `az login`.",
    },
    "container_failed": {
        "what": "container execution failed for '{name}'.",
        "next": "Review the container logs above, or rerun with CNAB_AZURE_DELETE_RESOURCES=false.",
    },
    "unexpected_status": {
        "what": "unexpected container status '{state}' for '{name}'.",
        "next": "Inspect the container group in the Azure portal before retrying.",
    },
    "role_not_found": {
        "what": "Role Definition for Role {role} not found for Scope: {scope}.",
        "next": "Check CNAB_AZURE_SYSTEM_MSI_ROLE against `az role definition list`.",
    },
    "registry_not_acr": {
        "what": "Cannot use Service Principal as credentials for non Azure registry: {domain}.",
        "next": "Use CNAB_AZURE_REGISTRY_USERNAME and CNAB_AZURE_REGISTRY_PASSWORD instead.",
    },
}


def actionable_error(code: str, **kwargs: str) -> str:
    if code not in _ERROR_MESSAGES:
        raise KeyError(f"Unknown error catalog key: {code}")

    template = _ERROR_MESSAGES[code]
    what = template["what"].format(**kwargs)
    next_step = template["next"].format(**kwargs)
    return f"{what} Suggested action: {next_step}"
