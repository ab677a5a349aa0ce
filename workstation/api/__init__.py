from .workstation import router as workstation
