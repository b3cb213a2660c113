from repogrep.cli import main

raise SystemExit(main())
