# errors.py

"""
Taxonomie des erreurs du moteur d'analytics.

→ ConfigurationError : fatale, jamais de valeur par défaut silencieuse
→ FetchFailed / FetchAborted : remontées par le record store
→ ReportUnavailable : levée par l'assembleur de rapport,
  une seule frontière de capture, pas de rapport partiel
"""


class AnalyticsError(Exception):
    pass


class ConfigurationError(AnalyticsError):
    """Période inconnue, poids de stage manquant, backend inconnu..."""


class FetchError(AnalyticsError):

    def __init__(self, entity: str, message: str = ""):
        self.entity = entity
        super().__init__(f"{entity} : {message}" if message else entity)


class FetchFailed(FetchError):
    """Erreur de transport ou réponse invalide du record store."""


class FetchAborted(FetchError):
    """Fetch annulé avant d'avoir reçu toutes les pages."""


class ReportUnavailable(AnalyticsError):

    def __init__(self, report: str, cause: Exception):
        self.report = report
        self.cause = cause
        super().__init__(f"Rapport {report} indisponible : {cause}")
