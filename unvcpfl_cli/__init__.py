"""unvcpfl: game launch profiles, monitor layouts and supervised launches."""
