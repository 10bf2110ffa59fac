"""Shared constants for the CNAB Azure driver."""

ENV_PREFIX = "CNAB_AZURE_"

ENV_VERBOSE = "CNAB_AZURE_VERBOSE"
ENV_CLIENT_ID = "CNAB_AZURE_CLIENT_ID"
ENV_CLIENT_SECRET = "CNAB_AZURE_CLIENT_SECRET"
ENV_TENANT_ID = "CNAB_AZURE_TENANT_ID"
ENV_APP_ID = "CNAB_AZURE_APP_ID"
ENV_SUBSCRIPTION_ID = "CNAB_AZURE_SUBSCRIPTION_ID"
ENV_RESOURCE_GROUP = "CNAB_AZURE_RESOURCE_GROUP"
ENV_LOCATION = "CNAB_AZURE_LOCATION"
ENV_NAME = "CNAB_AZURE_NAME"
ENV_DELETE_RESOURCES = "CNAB_AZURE_DELETE_RESOURCES"
ENV_MSI_TYPE = "CNAB_AZURE_MSI_TYPE"
ENV_SYSTEM_MSI_ROLE = "CNAB_AZURE_SYSTEM_MSI_ROLE"
ENV_SYSTEM_MSI_SCOPE = "CNAB_AZURE_SYSTEM_MSI_SCOPE"
ENV_USER_MSI_RESOURCE_ID = "CNAB_AZURE_USER_MSI_RESOURCE_ID"
ENV_PROPAGATE_CREDENTIALS = "CNAB_AZURE_PROPAGATE_CREDENTIALS"
ENV_USE_CLIENT_CREDS_FOR_REGISTRY_AUTH = "CNAB_AZURE_USE_CLIENT_CREDS_FOR_REGISTRY_AUTH"
ENV_REGISTRY_USERNAME = "CNAB_AZURE_REGISTRY_USERNAME"
ENV_REGISTRY_PASSWORD = "CNAB_AZURE_REGISTRY_PASSWORD"
ENV_STATE_FILESHARE = "CNAB_AZURE_STATE_FILESHARE"
ENV_STATE_STORAGE_ACCOUNT_NAME = "CNAB_AZURE_STATE_STORAGE_ACCOUNT_NAME"
ENV_STATE_STORAGE_ACCOUNT_KEY = "CNAB_AZURE_STATE_STORAGE_ACCOUNT_KEY"
ENV_STATE_MOUNT_POINT = "CNAB_AZURE_STATE_MOUNT_POINT"
ENV_DELETE_OUTPUTS_FROM_FILESHARE = "CNAB_AZURE_DELETE_OUTPUTS_FROM_FILESHARE"
ENV_DEBUG_CONTAINER = "CNAB_AZURE_DEBUG_CONTAINER"
ENV_MSI_AUDIENCE = "CNAB_AZURE_MSI_AUDIENCE"

DRIVER_ENV_VARS = {
    ENV_VERBOSE: "Increase verbosity. true, false are supported values",
    ENV_CLIENT_ID: "AAD Client ID for Azure account authentication",
    ENV_CLIENT_SECRET: "AAD Client Secret for Azure account authentication",
    ENV_TENANT_ID: "Azure AAD Tenant Id for Azure account authentication",
    ENV_APP_ID: "Azure Application Id used for device code authentication",
    ENV_SUBSCRIPTION_ID: "Azure Subscription Id, the first available subscription is used if not set",
    ENV_RESOURCE_GROUP: "Existing Resource Group for the ACI instance, created if not set",
    ENV_LOCATION: "The location to create the ACI instance in",
    ENV_NAME: "The name of the ACI instance, generated if not set",
    ENV_DELETE_RESOURCES: "Delete the ACI instance and any Resource Group created by the driver, default true",
    ENV_MSI_TYPE: "Managed identity for the ACI instance, user or system",
    ENV_SYSTEM_MSI_ROLE: "Role assigned to the system MSI, default Contributor",
    ENV_SYSTEM_MSI_SCOPE: "Scope of the system MSI role assignment, default the ACI Resource Group",
    ENV_USER_MSI_RESOURCE_ID: "Resource Id of the user MSI, required when the MSI type is user",
    ENV_PROPAGATE_CREDENTIALS: "Propagate the driver credentials to the invocation image as AZURE_ variables",
    ENV_USE_CLIENT_CREDS_FOR_REGISTRY_AUTH: "Use the client id and secret to authenticate to ACR",
    ENV_REGISTRY_USERNAME: "Username for the container registry",
    ENV_REGISTRY_PASSWORD: "Password for the container registry",
    ENV_STATE_FILESHARE: "Azure file share used for bundle state and outputs",
    ENV_STATE_STORAGE_ACCOUNT_NAME: "Storage account containing the state file share",
    ENV_STATE_STORAGE_ACCOUNT_KEY: "Storage account key for the state file share",
    ENV_STATE_MOUNT_POINT: "Mount point of the state file share in the container",
    ENV_DELETE_OUTPUTS_FROM_FILESHARE: "Delete outputs from the file share once read, default true",
    ENV_DEBUG_CONTAINER: "Keep the container running instead of executing the bundle",
    ENV_MSI_AUDIENCE: "Audience of the Cloud Shell token",
}

USER_AGENT = "cnab-azure-driver"
MANAGEMENT_SCOPE = "https://management.azure.com/.default"
DEFAULT_MSI_AUDIENCE = "https://management.azure.com/"
MSI_TOKEN_ENDPOINT = "http://169.254.169.254/metadata/identity/oauth2/token"
CLOUD_SHELL_TOKEN_API_VERSION = "2018-02-01"

CONTAINER_INSTANCE_PROVIDER = "Microsoft.ContainerInstance"
CONTAINER_GROUPS_RESOURCE_TYPE = "containerGroups"
USER_MSI_PROVIDER = "Microsoft.ManagedIdentity"
USER_MSI_RESOURCE_TYPE = "userAssignedIdentities"
AZURE_REGISTRY_SUFFIX = "azurecr.io"

NAME_PREFIX = "cnab-azure"
DEFAULT_SYSTEM_MSI_ROLE = "Contributor"
DEFAULT_STATE_MOUNT_POINT = "/mnt/cnab-azure/state"

FILE_MOUNT_POINT = "/mnt/BundleFiles"
FILE_MOUNT_NAME = "bundlefilevolume"
STATE_MOUNT_NAME = "statevolume"
BUNDLE_RUN_TOOL = "/cnab/app/run"
BUNDLE_OUTPUTS_DIR = "/cnab/app/outputs"
PLACEHOLDER_IMAGE = "alpine:latest"

CONTAINER_CPU = 1.5
CONTAINER_MEMORY_GB = 1.0

POLL_INTERVAL_SECONDS = 5.0
# ten minutes of image pull and scheduling before the first Running state
MAX_PENDING_POLLS = 120
ROLE_ASSIGNMENT_ATTEMPTS = 5
ROLE_ASSIGNMENT_BACKOFF_SECONDS = 20.0
MSI_CHECK_ATTEMPTS = 3

IMAGE_TYPE_DOCKER = "docker"
IMAGE_TYPE_OCI = "oci"
HANDLED_IMAGE_TYPES = (IMAGE_TYPE_DOCKER, IMAGE_TYPE_OCI)
