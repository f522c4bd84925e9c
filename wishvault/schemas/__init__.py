from wishvault.schemas.auth import CallerContext, UserCreate, UserLogin, UserResponse, AcceptInvite
from wishvault.schemas.vault import FuneralPlan, VaultPatch, DecryptedVault
from wishvault.schemas.trusted_contact import TrustedContactCreate, TrustedContactResponse, Nomination
from wishvault.schemas.release_request import ReleaseRequestCreate, ReleaseRequestResponse
