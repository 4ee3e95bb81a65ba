# Import all table models here
from models.tables.account import Account
from models.tables.provider_link import ProviderLink
from models.tables.server_settings import ServerSettings
from models.tables.user import User
