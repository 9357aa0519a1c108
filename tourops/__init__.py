"""Back-office API for a multi-channel tour operator."""
