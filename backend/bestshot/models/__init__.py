# Models package init
from bestshot.models.participant import Participant
from bestshot.models.photo import Photo
from bestshot.models.selection import Selection

__all__ = ["Participant", "Photo", "Selection"]
