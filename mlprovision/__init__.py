"""mlprovision: step-gated Azure ML provisioning walkthrough."""

__version__ = "0.1.0"
