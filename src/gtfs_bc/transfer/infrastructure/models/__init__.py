from .transfer_model import TransferModel

__all__ = ["TransferModel"]
