from redwire.cli import main

raise SystemExit(main())
