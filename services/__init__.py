"""Business logic services."""
from services.damage_ledger import DamageLedger
from services.delivery_sequencer import DeliverySequencer
from services.guards import GuardPolicy, guarded
from services.load_workflow import LoadWorkflowService, LoadedPath, loaded_path_for
from services.notifier import OwnerNotifier
from services.photo_requirement import PhotoRequirementService

__all__ = [
    "DamageLedger",
    "DeliverySequencer",
    "GuardPolicy",
    "guarded",
    "LoadWorkflowService",
    "LoadedPath",
    "loaded_path_for",
    "OwnerNotifier",
    "PhotoRequirementService",
]
