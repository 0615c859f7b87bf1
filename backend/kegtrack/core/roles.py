from enum import Enum


class Role(str, Enum):
    admin = "Admin"
    operador = "Operador"


ADMIN_ROLES = {Role.admin}
