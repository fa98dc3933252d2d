"""
voxd
Local daemon that speaks POST /speak batches on independently configured channels.

Layers:
- l0_core:    value objects, EventBus, errors
- l1_drivers: SpeechEngine port and concrete engines (pyttsx3, print)
- l2_speech:  ChannelRegistry and the SpeechManager queue state machine
- l3_domain:  settings loader and the HTTP bridge
"""

__version__ = "0.3.0"
