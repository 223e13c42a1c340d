"""
Lead/specialist chat orchestration.

A team lead optionally consults a bounded set of specialists in private,
then streams one answer. Frames describe phase progress
(planning -> consulting -> answering -> done) for the client UI.

  - transcript.py:   conversation -> agent input and meta-prompt text
  - selector.py:     which specialists (if any) to consult
  - consultation.py: concurrent specialist fan-out and the internal briefing
  - synthesis.py:    the lead's streamed answer
  - events.py:       wire frames, phase tracking, the ordered channel
  - chat_orchestrator.py: the state machine tying them together
"""
from .config import ConsultConfig
from .outcomes import DegradedReason, StepOutcome
from .events import (
    ConsultingStatus,
    EventChannel,
    Phase,
    PhaseTracker,
    PhaseTransitionError,
    StreamEvent,
)
from .selector import SelectionResult, SpecialistSelector
from .consultation import ConsultationCoordinator, ConsultationNote
from .synthesis import LeadSynthesizer, SynthesisResult
from .chat_orchestrator import (
    MODE_ALL,
    MODE_SPECIFIC,
    ChatOrchestrator,
    ChatTurnRequest,
    PreparedTurn,
    validate_chat_request,
)
