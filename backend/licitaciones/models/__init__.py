from licitaciones.models.tender import Tender, BusinessRules

__all__ = ["Tender", "BusinessRules"]
