"""
Streaming pipeline — producer task, bounded channel, run state machine.

Submodules:
  channel      — ``RecordChannel`` (bounded, receiver-drop aware)
  coordinator  — ``StreamCoordinator`` (token → rankings → per-entry talents)
"""
