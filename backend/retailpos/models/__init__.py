from .auth import User
from .inventory import Item, InventoryLog
from .sales import Sale
from .documents import DocumentSequence
from .contracts import ContractCustomer, InstallmentContract, ContractApproval, ContractSponsor
from .payments import InstallmentPayment, InstallmentTransaction

__all__ = [
    'User',
    'Item', 'InventoryLog',
    'Sale',
    'DocumentSequence',
    'ContractCustomer', 'InstallmentContract', 'ContractApproval', 'ContractSponsor',
    'InstallmentPayment', 'InstallmentTransaction',
]
