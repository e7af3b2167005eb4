"""
Exceptions personnalisées pour le serveur MCP FHIRfly.
"""


class FhirflyMcpError(Exception):
    """Exception de base pour toutes les erreurs du serveur MCP."""

    def __init__(self, message: str, code: str = None, details: dict = None):
        super().__init__(message)
        self.message = message
        self.code = code or "unknown_error"
        self.details = details or {}

    def __str__(self):
        if self.details:
            return f"[{self.code}] {self.message} - Détails: {self.details}"
        return f"[{self.code}] {self.message}"


class ConfigurationError(FhirflyMcpError):
    """Erreur de configuration (variable d'environnement manquante, valeur invalide)."""

    def __init__(self, message: str, config_key: str = None):
        super().__init__(
            message=message,
            code="config_error",
            details={"key": config_key} if config_key else {}
        )


class UpstreamRpcError(FhirflyMcpError):
    """Erreur JSON-RPC retournée par l'API FHIRfly (champ `error` de la réponse)."""

    def __init__(self, message: str, rpc_code: int = None, data: object = None):
        details = {}
        if rpc_code is not None:
            details["rpc_code"] = rpc_code
        if data is not None:
            details["data"] = data
        super().__init__(
            message=message,
            code="upstream_rpc_error",
            details=details
        )
        self.rpc_code = rpc_code
