from app.models.scorecard import AgentMetric  # noqa: F401
from app.models.user import User, UserRole  # noqa: F401
