from .user import User
from .preference import CoffeePreference
from .sleep_record import SleepRecord
from .brew import BrewLog
from .pending_brew import PendingBrew
