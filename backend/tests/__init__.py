# Force SQLModel table registration at test discovery time
import backoffice.models  # noqa: F401
