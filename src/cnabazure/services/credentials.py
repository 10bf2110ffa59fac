"""Azure login resolution for the CNAB Azure driver."""

import time

import azure.identity
from azure.core.credentials import AccessToken
from azure.core.exceptions import AzureError

from cnabazure.constants import (
    CLOUD_SHELL_TOKEN_API_VERSION,
    MANAGEMENT_SCOPE,
    MSI_CHECK_ATTEMPTS,
    MSI_TOKEN_ENDPOINT,
)
from cnabazure.errors import AuthenticationError
from cnabazure.errors_catalog import actionable_error
from cnabazure.models import DriverConfig, LoginInfo, LoginType


class StaticTokenCredential:
    """TokenCredential that always hands back one pre-fetched bearer token."""

    def __init__(self, token: str, expires_on: int):
        self.token = token
        self.expires_on = expires_on

    def get_token(self, *scopes, **kwargs) -> AccessToken:
        return AccessToken(self.token, self.expires_on)


class CredentialResolver:
    """Picks exactly one login method and verifies it against the management plane."""

    def __init__(self, logger, console, requests_module, identity_module=azure.identity):
        self.logger = logger
        self.console = console
        self.requests = requests_module
        self.identity = identity_module

    def resolve(self, config: DriverConfig) -> LoginInfo:
        if config.uses_service_principal:
            self.logger.debug("Using service principal %s for Azure login", config.client_id)
            credential = self.identity.ClientSecretCredential(
                tenant_id=config.tenant_id,
                client_id=config.client_id,
                client_secret=config.client_secret,
            )
            return self._verify(credential, LoginType.SERVICE_PRINCIPAL)

        if config.app_id and config.tenant_id:
            self.logger.debug("Using device code flow for application %s", config.app_id)
            credential = self.identity.DeviceCodeCredential(
                client_id=config.app_id,
                tenant_id=config.tenant_id,
                prompt_callback=self._prompt_device_code,
            )
            return self._verify(credential, LoginType.DEVICE_CODE)

        if config.in_cloud_shell:
            self.logger.debug("Cloud Shell detected, fetching token from %s", config.msi_endpoint)
            credential = self._cloud_shell_credential(config)
            return self._verify(credential, LoginType.CLOUD_SHELL)

        if self.check_msi_endpoint():
            self.logger.debug("MSI endpoint available, using managed identity login")
            return self._verify(self.identity.ManagedIdentityCredential(), LoginType.MSI)

        self.logger.debug("Falling back to Azure CLI login")
        return self._verify(
            self.identity.AzureCliCredential(),
            LoginType.CLI,
            failure_message=actionable_error("no_credentials"),
        )

    def check_msi_endpoint(self) -> bool:
        for attempt in range(1, MSI_CHECK_ATTEMPTS + 1):
            try:
                self.requests.head(MSI_TOKEN_ENDPOINT, timeout=attempt)
                return True
            except self.requests.RequestException as exc:
                self.logger.debug(
                    "MSI endpoint check failed on attempt %s/%s: %s",
                    attempt,
                    MSI_CHECK_ATTEMPTS,
                    exc,
                )
        return False

    def _cloud_shell_credential(self, config: DriverConfig) -> StaticTokenCredential:
        if not config.msi_endpoint:
            raise AuthenticationError("Cloud Shell detected but MSI_ENDPOINT is not set")

        try:
            response = self.requests.get(
                config.msi_endpoint,
                headers={"Metadata": "true"},
                params={
                    "api-version": CLOUD_SHELL_TOKEN_API_VERSION,
                    "resource": config.msi_audience,
                },
                timeout=30,
            )
            response.raise_for_status()
            payload = response.json()
        except self.requests.RequestException as exc:
            raise AuthenticationError(f"Failed to get Cloud Shell token: {exc}") from exc
        except ValueError as exc:
            raise AuthenticationError(f"Invalid Cloud Shell token response: {exc}") from exc

        token = payload.get("access_token")
        if not token:
            raise AuthenticationError("Cloud Shell token response has no access_token")

        expires_on = payload.get("expires_on") or int(time.time()) + 3600
        return StaticTokenCredential(token, int(expires_on))

    def _verify(self, credential, login_type: LoginType, failure_message=None) -> LoginInfo:
        try:
            credential.get_token(MANAGEMENT_SCOPE)
        except AzureError as exc:
            message = failure_message or f"Azure login using {login_type.value} failed: {exc}"
            raise AuthenticationError(message) from exc

        def token_provider() -> str:
            return credential.get_token(MANAGEMENT_SCOPE).token

        return LoginInfo(credential=credential, login_type=login_type, token_provider=token_provider)

    def _prompt_device_code(self, verification_uri: str, user_code: str, expires_on):
        self.console.print(
            f"[yellow]To sign in, open {verification_uri} and enter the code {user_code}[/yellow]"
        )
