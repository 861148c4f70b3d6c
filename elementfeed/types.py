"""Common annotated types for field validation.

These types provide consistent validation patterns across the models.
"""

from typing import Annotated

from pydantic import Field

# Pattern for actor / user identifiers coming from the auth collaborator
ACTOR_ID_PATTERN = r"^[A-Za-z0-9_.@:-]+$"


# Content identifier - positive integer, unique per content type
ContentId = Annotated[int, Field(ge=1)]

# Positivity score - integer percentage
PositivityScore = Annotated[int, Field(ge=0, le=100)]

# Classifier confidence
Confidence = Annotated[float, Field(ge=0.0, le=1.0)]

# Non-negative counter (views, engagement)
Counter = Annotated[int, Field(ge=0)]

# User / moderator / creator identifier
ActorId = Annotated[str, Field(min_length=1, pattern=ACTOR_ID_PATTERN)]
