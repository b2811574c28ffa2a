raise RuntimeError("Only allowlisted type files may be imported while scanning")
