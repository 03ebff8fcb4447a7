"""Template language used to display breaches."""
