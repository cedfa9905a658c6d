import subprocess
import sys
import os
from pathlib import Path

def main():
    project_root = Path(__file__).parent.parent
    os.chdir(project_root)
    
    # Ensure src is in python path
    env = os.environ.copy()
    src_path = str(project_root / "src")
    if "PYTHONPATH" in env:
        env["PYTHONPATH"] = f"{src_path}{os.pathsep}{env['PYTHONPATH']}"
    else:
        env["PYTHONPATH"] = src_path

    # Default to the bundled sample rates when none are configured
    env.setdefault("CART_TAX_RATES_CSV", str(project_root / "data" / "tax_rates.csv"))

    print("Starting Cart Totals API (FastAPI)...")
    try:
        subprocess.run([
            sys.executable, "-m", "uvicorn", 
            "cart_totals.api.main:app", 
            "--host", "0.0.0.0", 
            "--port", "8000", 
            "--reload"
        ], env=env)
    except KeyboardInterrupt:
        print("\nAPI stopped.")

if __name__ == "__main__":
    main()
