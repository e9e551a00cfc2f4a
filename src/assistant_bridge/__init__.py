"""OpenAI Assistants orchestration with Twilio voice and SMS channels."""
