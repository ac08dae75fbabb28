"""Course & quiz service with timed, auto-graded multiple-choice attempts."""
