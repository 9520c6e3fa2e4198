"""
Challenge Engine for generating random liveness challenge sequences
"""
import logging
import secrets
from typing import Iterable, List, Optional

from ..models.data_models import Challenge, ChallengeType

logger = logging.getLogger(__name__)


class ChallengeEngine:
    """
    Generates unpredictable, non-repeating gesture sequences for a session.

    Sampling uses the system CSPRNG so sequences cannot be predicted
    from earlier sessions.
    """

    # Full catalog, in display order
    CHALLENGE_POOL = list(ChallengeType)

    # Human-readable instructions for each challenge type
    CHALLENGE_INSTRUCTIONS = {
        ChallengeType.BLINK: "Blink your eyes",
        ChallengeType.TURN_LEFT: "Turn your head left",
        ChallengeType.TURN_RIGHT: "Turn your head right",
        ChallengeType.SMILE: "Smile",
        ChallengeType.OPEN_MOUTH: "Open your mouth",
        ChallengeType.RAISE_EYEBROWS: "Raise your eyebrows",
        ChallengeType.SQUINT: "Squint your eyes",
        ChallengeType.LOOK_UP: "Look up",
        ChallengeType.LOOK_DOWN: "Look down",
        ChallengeType.WINK_LEFT: "Wink your left eye",
        ChallengeType.WINK_RIGHT: "Wink your right eye",
        ChallengeType.PURSE_LIPS: "Purse your lips",
        ChallengeType.FROWN: "Frown",
    }

    def __init__(self):
        self._random = secrets.SystemRandom()

    def get_instruction(self, challenge_type: ChallengeType) -> str:
        return self.CHALLENGE_INSTRUCTIONS[ChallengeType(challenge_type)]

    def generate_challenge_sequence(
        self,
        count: int,
        available_types: Optional[Iterable[ChallengeType]] = None
    ) -> List[Challenge]:
        """
        Generate a random sequence of distinct challenges.

        Types are sampled uniformly without replacement. Asking for more
        challenges than there are types returns every type once, shuffled.

        Args:
            count: Number of challenges requested
            available_types: Types to sample from (defaults to the full catalog)

        Returns:
            List[Challenge]: Challenges with completed=False
        """
        if count <= 0:
            return []

        pool = self.CHALLENGE_POOL if available_types is None else available_types
        # Collapse duplicates while keeping the caller's order
        types = list(dict.fromkeys(ChallengeType(t) for t in pool))

        selected = self._random.sample(types, min(count, len(types)))
        if count > len(types):
            logger.debug(f"Requested {count} challenges but only {len(types)} types available")

        return [
            Challenge(
                type=challenge_type,
                instruction=self.CHALLENGE_INSTRUCTIONS[challenge_type],
                completed=False
            )
            for challenge_type in selected
        ]
