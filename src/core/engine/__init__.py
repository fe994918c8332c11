"""Engine — plan building, execution, interrupts and reporting."""
