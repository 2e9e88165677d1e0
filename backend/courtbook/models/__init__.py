from .generated import (
    Base,
    Users,
    Locations,
    Availabilities,
    Bookings,
    ClientWallets,
    WalletTransactions,
)

__all__ = [
    "Base",
    "Users",
    "Locations",
    "Availabilities",
    "Bookings",
    "ClientWallets",
    "WalletTransactions",
]
