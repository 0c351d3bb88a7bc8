"""Wire schemas and enums shared between the Volunteer Hub server and its clients."""
