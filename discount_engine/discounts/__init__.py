from discount_engine.discounts.admission import AdmissionController
from discount_engine.discounts.catalog import CodeCatalog
from discount_engine.discounts.finalizer import RedemptionFinalizer
from discount_engine.discounts.sweeper import ReclamationSweeper

__all__ = [
    "AdmissionController",
    "CodeCatalog",
    "ReclamationSweeper",
    "RedemptionFinalizer",
]
